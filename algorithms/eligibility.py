from datetime import timedelta

from django.utils import timezone

# Constants
DONATION_COOLDOWN_DAYS = 90


def eligibility_cutoff(today=None):
    """Latest last-donation date that still allows a new donation"""
    today = today or timezone.localdate()
    return today - timedelta(days=DONATION_COOLDOWN_DAYS)


def next_eligible_date(last_donation_date):
    """First day a donor who gave on last_donation_date may give again"""
    return last_donation_date + timedelta(days=DONATION_COOLDOWN_DAYS)


def is_donor_eligible(donor, today=None) -> bool:
    """
    Check if a user may be offered as a donor.

    Criteria:
    - User is flagged as a donor
    - User hasn't donated in the last 90 days

    Args:
        donor: Object with is_donor and last_donation_date
        today (date): Reference day, defaults to today in TIME_ZONE

    Returns:
        bool: True if eligible, False otherwise
    """
    if not donor.is_donor:
        return False

    if donor.last_donation_date and donor.last_donation_date > eligibility_cutoff(today):
        return False

    return True
