"""Carina command line client.

Create, inspect, scale and connect to Docker Swarm clusters on the make-swarm
service or on an OpenStack Magnum cloud.
"""

__version__ = "2.1.0"
__author__ = "Carina Team"
__license__ = "Apache-2.0"
