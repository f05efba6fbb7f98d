"""Firebase Admin adapters.

Architecture:
- client.py: app initialization and production Services wiring
- identity.py: Firebase Authentication (users, custom claims, action links)
- documents.py: Cloud Firestore implementation of the DocumentStore port
- exceptions.py: provider error codes used for classification

Only client.py, identity.py and documents.py import firebase_admin; the
exceptions module is safe to import without it.
"""
