"""
Solana Launchpad Package Initialization

This package provides the economics engine of a Solana token launchpad built on the
Model Context Protocol (MCP). Given the state of a token sale it derives the unit price
along a bonding curve, the sale's progress toward graduation, how a pre-funded reward
pool is shared among traders who provided volume, and a trending score that ranks
launches.

The package includes:
- Bonding curve pricing (fixed, linear and exponential curves)
- Graduation monitoring with edge-triggered milestones
- Market making reward pools with atomic allocations
- Trending and hype scoring with ranked dashboards
- Launch configuration management and trade telemetry
- MCP server and read-only HTTP API
"""
