"""
Sommelier off-chain stats service.

Keeps balance and auction feeds fresh in memory and serves derived figures
such as circulating supply over HTTP.
"""
