"""
Toolkit services.

LLMs interpret and structure; the application decides what actually runs.
The action registry only dispatches decisions to handlers the application
registered itself.
"""
