# Routes package init
"""
dineAR Backend — API Routes Package
====================================

Route Inventory:
    - auth.py:    POST /api/auth/signup, POST /api/auth/login,
                  GET  /api/auth/me,     POST /api/auth/logout
    - dishes.py:  GET  /api/dishes,      POST /api/dishes
                  GET/PUT/DELETE /api/dishes/{id}
    - health.py:  GET  /health

Uploaded images are not a route: main.py mounts StaticFiles at /uploads.

Design Principle:
    Routes stay thin: extract, validate, call a service, wrap the envelope.
"""
