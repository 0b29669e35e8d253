"""
Linear Agent CLI
Interactive command line front-end

Components:
- cli.py: click entry point (linear-agent)
- ui.py: ticket listing, selection prompts and the setup wizard
"""
