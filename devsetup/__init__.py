"""devsetup — idempotent terminal environment provisioning for Termux and proot guests."""

__version__ = "0.1.0"
