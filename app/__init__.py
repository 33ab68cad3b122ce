"""
Gallery application package.

Introduces a layered architecture:

  app/repositories/  - pure I/O: the blob store holding source archives and images.
  app/services/      - business logic: publishing, listing, projects, name rules.

``gallery_server.py`` creates the repository and service instances at import
time and route handlers call the services directly, keeping the HTTP layer
separate from the domain.  ``gallery_client.py`` uses the settings and name
validator on the client side.
"""
