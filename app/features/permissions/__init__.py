"""
Permission management feature module.

Roles, permission grants, and the effective permission matrix a user
gets from the union of their roles.
"""
