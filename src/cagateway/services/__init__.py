"""Request pipeline: parsing, validation, assembly and dispatch."""
