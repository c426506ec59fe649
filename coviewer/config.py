"""
Central configuration and tunables.

Every value can be overridden from the environment (COVIEWER_*), or per app
by passing a mapping to create_app().
"""

import os

# Network
HOST = os.getenv("COVIEWER_HOST", "0.0.0.0")
PORT = int(os.getenv("COVIEWER_PORT", "5000"))
SECRET_KEY = os.getenv("COVIEWER_SECRET_KEY", "secret")
CORS_ALLOWED_ORIGINS = os.getenv("COVIEWER_CORS_ALLOWED_ORIGINS", "*")
ASYNC_MODE = os.getenv("COVIEWER_ASYNC_MODE", "threading")

# Roles
ADMIN_NAME = os.getenv("COVIEWER_ADMIN_NAME", "admin")
# "shared": every admin claimant gets the role; "lease": first claimant only
ADMIN_POLICY = os.getenv("COVIEWER_ADMIN_POLICY", "shared")

# Documents
MAX_DOCUMENT_BYTES = int(os.getenv("COVIEWER_MAX_DOCUMENT_BYTES", str(50 * 1024 * 1024)))

# Clients
COMMAND_TIMEOUT = float(os.getenv("COVIEWER_COMMAND_TIMEOUT", "10.0"))
RENDER_ZOOM = float(os.getenv("COVIEWER_RENDER_ZOOM", "1.5"))

# Logs
LOG_LEVEL = os.getenv("COVIEWER_LOG_LEVEL", "INFO")

ADMIN_POLICIES = ("shared", "lease")
