"""
auth — User authentication module.

Provides:
  • Signed bearer token creation & verification (user id + role)
  • Password hashing (bcrypt)
  • Register / Login API routes
  • ``get_current_user`` and ``require_roles`` FastAPI dependencies
"""
