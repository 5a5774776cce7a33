"""Import services: header resolution, row binding, orchestration, reporting."""
