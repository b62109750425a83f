"""Terraform-style infrastructure-as-code for the Emporix management API."""

__version__ = "0.1.0"
