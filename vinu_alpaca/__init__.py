"""
ASCOM Alpaca Driver for VINU roll-off roof controllers.

A Python-based middleware driver that bridges HTTP REST clients (NINA, Voyager, SGP)
with an Arduino roof controller speaking the VINU line protocol over a serial link.
"""

__version__ = "1.0.0"
__author__ = "Vitor Nunes"
