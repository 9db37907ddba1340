"""
Example Functions

This package demonstrates how to use the cloudfn SDK to declare
Pub/Sub, HTTP and callable functions. Run `cloudfn manifest examples`
to print their deployment manifest.
"""

from .api import *
from .workers import *
