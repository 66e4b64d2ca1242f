"""
Core infrastructure package for the image-inspector service.

Modules:
- config   : Environment and path configuration model.
- db       : SQLite connection and schema initialization helpers.
- models   : Pydantic domain models used across services.
- errors   : Error taxonomy shared by services and routes.
- logging  : Lightweight console/file logging helpers.
- proc     : Subprocess helpers for driving the container engine CLI.
- jobs     : Job record store.
- cache    : Time-bounded result cache.
- archive  : Tar stream decoding into file records.
- tree     : File tree assembly and filtering.
- sizes    : Human-readable byte sizes.
"""
