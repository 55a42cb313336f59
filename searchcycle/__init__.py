# searchcycle Package
"""
Core of a browser extension that cycles one query through several search engines.

Modules:
  - search: Engine catalog, URL matching, query extraction, rotation
  - services: Durable storage, settings store, messaging contract
  - app: Wires everything into one App handle
"""

__version__ = "0.1.0-dev"
