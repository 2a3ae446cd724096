"""
Persistence for price ticks, news events and analysis output.
"""
