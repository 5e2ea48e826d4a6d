"""
Core Package.

Contains the rewrite machinery:
- Tree Handler (parse, render, declaration units)
- Rewrite Strategies (annotation, external transformation)
- Rewrite Engine
- Trace Logger and error hierarchy
"""
