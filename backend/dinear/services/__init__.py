# Services package init
"""
dineAR Backend — Services Layer
================================

What:  Business logic, independent of HTTP.

Service Inventory:
    - token_service:       issue/verify bearer tokens (PyJWT)
    - credential_service:  users and bcrypt password checks
    - upload_service:      image validation, storage, URL mapping, cleanup
    - qr_service:          best-effort QR payload rendering
    - dish_service:        the ownership pipeline over dishes

Each module exposes a stateless class plus a module-level singleton that
routes import. Tests build their own instances with overrides.
"""
