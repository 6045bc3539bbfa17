"""Onboarding service: role and permission management.

To use the Flask app:
    from onboarding.flask_app import create_app

To use the role service directly:
    from onboarding.core.roles import RoleService
"""
# flask_app is not imported here so onboarding.core stays usable without Flask
