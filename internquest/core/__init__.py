"""Core Business Logic Module

Administrative operations of the InternQuest backend, independent of Flask.

Module Structure:
    - roles.py         : Role model and creation hierarchy
    - authz.py         : Authorization gate (caller identity, operation policies)
    - errors.py        : Error taxonomy (ServiceError, ErrorKind)
    - accounts.py      : Account provisioning and maintenance
    - migration.py     : studentNumber -> studentId backfill engine
    - lookup.py        : Student-id to email lookup with block enforcement
    - notifications.py : Push fan-out (direct and on notification creation)
    - push.py          : Expo push gateway client
    - mailer.py        : SMTP relay
    - audit.py         : Signed audit trail
    - store.py         : Document store port
    - services.py      : Collaborator bundle
    - firebase/        : Firebase Auth and Firestore adapters

Usage Pattern:
    Modules are NOT auto-imported so the pure ones (roles, authz, migration,
    lookup) can be used without firebase_admin installed:
        from internquest.core.accounts import create_user_with_role
        from internquest.core.migration import MigrationOptions, StudentIdMigration
"""
