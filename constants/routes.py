# constants/routes.py
"""
Base route catalogue for the initial fleet. Each entry is one direction;
the seeder adds the reverse direction as an independent record.
"""
from __future__ import annotations

from typing import Any, Dict, List

BASE_ROUTES: List[Dict[str, Any]] = [
    # Western (via Nakuru, Kericho/Eldoret)
    {"origin": "Nairobi", "destination": "Kisumu", "departure_time": "08:00 AM", "price": 1500, "bus_class": "Luxury", "stops": ["Naivasha", "Nakuru", "Kericho", "Ahero"]},
    {"origin": "Nairobi", "destination": "Kisumu", "departure_time": "09:00 PM", "price": 1500, "bus_class": "Luxury", "stops": ["Naivasha", "Nakuru", "Kericho", "Ahero"]},
    {"origin": "Nairobi", "destination": "Busia", "departure_time": "07:30 AM", "price": 1600, "bus_class": "Luxury", "stops": ["Nakuru", "Eldoret", "Bungoma", "Mumias"]},
    {"origin": "Nairobi", "destination": "Busia", "departure_time": "08:00 PM", "price": 1600, "bus_class": "Standard", "stops": ["Nakuru", "Eldoret", "Bungoma"]},
    {"origin": "Nairobi", "destination": "Kakamega", "departure_time": "08:00 AM", "price": 1500, "bus_class": "Luxury", "stops": ["Nakuru", "Kapsabet", "Chavakali"]},
    {"origin": "Nairobi", "destination": "Bungoma", "departure_time": "09:00 PM", "price": 1500, "bus_class": "Standard", "stops": ["Nakuru", "Eldoret", "Webuye"]},
    {"origin": "Nairobi", "destination": "Kitale", "departure_time": "07:00 AM", "price": 1500, "bus_class": "Luxury", "stops": ["Nakuru", "Eldoret", "Moi's Bridge"]},
    {"origin": "Nairobi", "destination": "Mumias", "departure_time": "08:00 PM", "price": 1600, "bus_class": "Standard", "stops": ["Nakuru", "Kisumu", "Kakamega"]},
    {"origin": "Nairobi", "destination": "Siaya", "departure_time": "08:30 AM", "price": 1600, "bus_class": "Luxury", "stops": ["Nakuru", "Kisumu", "Luanda"]},
    {"origin": "Nairobi", "destination": "Bondo", "departure_time": "09:00 AM", "price": 1600, "bus_class": "Luxury", "stops": ["Nakuru", "Kisumu", "Nedwo"]},
    {"origin": "Nairobi", "destination": "Usenge", "departure_time": "08:00 PM", "price": 1700, "bus_class": "Standard", "stops": ["Nakuru", "Kisumu", "Bondo"]},
    {"origin": "Nairobi", "destination": "Port Victoria", "departure_time": "07:00 PM", "price": 1700, "bus_class": "Standard", "stops": ["Nakuru", "Kisumu", "Busia"]},

    # Nyanza South (via Narok, Kisii)
    {"origin": "Nairobi", "destination": "Kisii", "departure_time": "07:00 AM", "price": 1200, "bus_class": "Luxury", "stops": ["Narok", "Bomet", "Sotik"]},
    {"origin": "Nairobi", "destination": "Kisii", "departure_time": "11:00 AM", "price": 1200, "bus_class": "Standard", "stops": ["Narok", "Bomet"]},
    {"origin": "Nairobi", "destination": "Homabay", "departure_time": "08:00 AM", "price": 1300, "bus_class": "Luxury", "stops": ["Narok", "Kisii", "Rongo"]},
    {"origin": "Nairobi", "destination": "Migori", "departure_time": "07:30 AM", "price": 1400, "bus_class": "Luxury", "stops": ["Narok", "Kisii", "Rongo", "Awendo"]},
    {"origin": "Nairobi", "destination": "Sirare", "departure_time": "06:00 AM", "price": 1500, "bus_class": "Luxury", "stops": ["Narok", "Kisii", "Migori", "Kehancha"]},
    {"origin": "Nairobi", "destination": "Mbita", "departure_time": "08:00 PM", "price": 1400, "bus_class": "Standard", "stops": ["Narok", "Homabay"]},
    {"origin": "Nairobi", "destination": "Sori", "departure_time": "07:00 PM", "price": 1400, "bus_class": "Standard", "stops": ["Narok", "Homabay", "Rod Kopany"]},
    {"origin": "Nairobi", "destination": "Kendu Bay", "departure_time": "01:00 PM", "price": 1300, "bus_class": "Standard", "stops": ["Narok", "Oyugis"]},
    {"origin": "Nairobi", "destination": "Oyugis", "departure_time": "02:00 PM", "price": 1200, "bus_class": "Standard", "stops": ["Narok", "Kisii"]},

    # Coast (via Mombasa Rd)
    {"origin": "Nairobi", "destination": "Mombasa", "departure_time": "08:30 AM", "price": 1500, "bus_class": "Luxury", "stops": ["Mtito Andei", "Voi", "Mariakani"]},
    {"origin": "Nairobi", "destination": "Mombasa", "departure_time": "09:00 PM", "price": 1500, "bus_class": "Luxury", "stops": ["Mtito Andei", "Voi"]},
    {"origin": "Nairobi", "destination": "Malindi", "departure_time": "07:00 PM", "price": 2000, "bus_class": "Luxury", "stops": ["Mombasa", "Kilifi", "Mtwapa"]},
    {"origin": "Nairobi", "destination": "Ukunda", "departure_time": "08:00 PM", "price": 1800, "bus_class": "Luxury", "stops": ["Mombasa", "Likoni"]},

    # Cross-country (Mombasa to Western)
    {"origin": "Mombasa", "destination": "Kisumu", "departure_time": "04:00 PM", "price": 2500, "bus_class": "Luxury", "stops": ["Nairobi", "Nakuru", "Kericho"]},
    {"origin": "Mombasa", "destination": "Busia", "departure_time": "03:00 PM", "price": 2600, "bus_class": "Luxury", "stops": ["Nairobi", "Nakuru", "Eldoret"]},
    {"origin": "Mombasa", "destination": "Kitale", "departure_time": "03:30 PM", "price": 2600, "bus_class": "Standard", "stops": ["Nairobi", "Eldoret"]},

    # Short haul
    {"origin": "Nakuru", "destination": "Kisumu", "departure_time": "10:00 AM", "price": 800, "bus_class": "Standard", "stops": ["Kericho"]},
    {"origin": "Eldoret", "destination": "Nairobi", "departure_time": "02:00 PM", "price": 1000, "bus_class": "Standard", "stops": ["Nakuru"]},
    {"origin": "Kisumu", "destination": "Mombasa", "departure_time": "01:00 PM", "price": 2500, "bus_class": "Luxury", "stops": ["Kericho", "Nakuru", "Nairobi"]},
]
