"""Check and update CurseForge mods in a local or SFTP mods directory."""

__version__ = "0.1.0"
