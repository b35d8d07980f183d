"""auth/ -- Authentication and authorization package for ForsaLearn.

Layer rule: auth/ imports only stdlib + third-party libraries (and core/ for
settings). It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
