"""Interfaces/abstracciones del Core.

Por qué:
- `ProjectClient` es el contrato que el agregador necesita de cada proyecto.
- El Core depende de ese Protocol; el cliente REST y los fakes de tests lo cumplen.
"""
