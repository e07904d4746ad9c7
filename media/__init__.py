"""media/ -- Object-store collaborator for profile images.

Layer rule: media/ imports from auth.errors (for UploadError) and core/ only.
It does NOT import from api/. The session manager depends on the ObjectStore
protocol, never on a concrete backend.
"""
