"""droidprep: prepares droid agent runs from GitHub events"""

__version__ = "0.1.0"
