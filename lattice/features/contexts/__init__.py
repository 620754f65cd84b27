"""
Context management feature module.

A context is a scoping boundary (organization, team, project) identified by an
application-supplied id and a type.
"""
