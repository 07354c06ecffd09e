"""
Permission evaluation feature module.

Default role templates, the dotted-path evaluator, approval limits and the
FastAPI guards built on them.
"""
