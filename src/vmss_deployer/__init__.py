"""Declarative create-or-update deployer for Azure VM scale sets."""

__version__ = "0.1.0"
