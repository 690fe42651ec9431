"""
Resolution engine.

The resolver turns (location, radius, dataset descriptor) into a ranked, de-duplicated
list of containing and nearby features. Fan-out runs it across many datasets at once.
"""
