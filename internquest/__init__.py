"""InternQuest admin backend.

To serve the functions:
    from internquest.flask_app import create_app

To use the business logic directly:
    from internquest.core.accounts import create_user_with_role
    from internquest.core.migration import StudentIdMigration
"""
