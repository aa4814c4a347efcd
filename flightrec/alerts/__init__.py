"""Mapping of Engine alerts to events and their JSON and CEF formatting."""