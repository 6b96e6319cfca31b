"""Offline closed-loop simulation."""

from .highway_simulator import HighwaySimulator, TickRecord, TrafficVehicle, make_loop_track

__all__ = ['HighwaySimulator', 'TickRecord', 'TrafficVehicle', 'make_loop_track']
