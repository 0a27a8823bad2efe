"""
Stepbatch CLI - Command-line interface for the step counter service.

Sends control commands over MQTT without writing JSON by hand, and can play
the sensor device side for manual testing.

Usage:
    stepbatch-cli register-counter --batching 5s
    stepbatch-cli register-detector
    stepbatch-cli unregister
    stepbatch-cli status
    stepbatch-cli emit-counter 1042
"""

__version__ = "1.0.0"
