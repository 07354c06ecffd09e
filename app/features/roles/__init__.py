"""
Tenant-scoped role management.

System roles are seeded from the built-in templates; custom roles carry their
own permission tree snapshot.
"""
