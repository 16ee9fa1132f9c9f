"""Knowledge-graph construction.

Nodes are documents and their sections; links come from explicit markdown and
wiki links, from section nesting, and (optionally) from noun phrases in the
text that happen to match another node id. Extraction is heuristic so it works
offline and fast on small machines.
"""
