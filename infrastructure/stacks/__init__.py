"""GCP network foundation stacks."""

from . import firewall as firewall
from . import network as network
