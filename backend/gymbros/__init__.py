"""GymBros swipe discovery engine."""
