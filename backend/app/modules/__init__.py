# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
EngraveMap — Pipeline Modules
  geo          coordinate mapping, tile sources, reverse geocoding
  compositing  base map assembly and overlay painting
  engraving    two-level conversion, print scaling, bounded encoding
  commerce     pricing, storefront backend, cart reconciliation
"""
