"""
TalentFlow: a client-resident hiring board backed by a simulated API.

The collection store and query engine act as the backend; the optimistic
boards keep the rendered view consistent with it.
"""

__version__ = "0.1.0"
