# FleetDesk - time tracking, project allocation and driving journal service

__version__ = "0.1.0"
