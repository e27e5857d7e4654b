"""pyenv-driven interpreter provisioning."""
