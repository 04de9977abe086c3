"""
Scheduling Domain

Turns an expert's weekly availability into bookable time slots.

LAYOUT:
- timezones.py: UTC/IANA helpers (DST-aware localization, day-of-week, display)
- slot_generator.py: pure slot computation, no I/O
- service.py: SlotService gathers windows, blocked slots, appointments and
  calendar busy times, then calls the generator
- router.py: GET /experts/{id}/slots, GET /timezones

Slot computation is on demand and takes no locks. The booking domain
re-checks a chosen slot against the same rules before reserving it.
"""
