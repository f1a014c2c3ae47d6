"""
Seed the initial subscription plans and featured-listing packages.

Stripe price IDs are left blank; staff fill them in from the admin
before a plan can be subscribed to.
"""

from decimal import Decimal

from django.db import migrations

PLANS = [
    {
        "slug": "basic",
        "name": "Basic",
        "price": Decimal("29.99"),
        "features": ["Up to 5 active listings", "Standard support"],
        "sort_order": 1,
    },
    {
        "slug": "premium",
        "name": "Premium",
        "price": Decimal("79.99"),
        "features": [
            "Up to 25 active listings",
            "One featured listing per month",
            "Priority support",
        ],
        "sort_order": 2,
    },
    {
        "slug": "enterprise",
        "name": "Enterprise",
        "price": Decimal("199.99"),
        "features": [
            "Unlimited listings",
            "Five featured listings per month",
            "Dedicated account manager",
        ],
        "sort_order": 3,
    },
]

PACKAGES = [
    {"name": "Featured 7 days", "duration_days": 7, "price": Decimal("9.99"), "sort_order": 1},
    {"name": "Featured 30 days", "duration_days": 30, "price": Decimal("29.99"), "sort_order": 2},
    {"name": "Featured 90 days", "duration_days": 90, "price": Decimal("79.99"), "sort_order": 3},
]


def seed_catalog(apps, schema_editor):
    SubscriptionPlan = apps.get_model("payments", "SubscriptionPlan")
    FeaturedListingPackage = apps.get_model("payments", "FeaturedListingPackage")

    for plan in PLANS:
        SubscriptionPlan.objects.get_or_create(
            slug=plan["slug"],
            defaults={**plan, "currency": "USD"},
        )

    for package in PACKAGES:
        FeaturedListingPackage.objects.get_or_create(
            duration_days=package["duration_days"],
            defaults={**package, "currency": "USD"},
        )


def remove_catalog(apps, schema_editor):
    SubscriptionPlan = apps.get_model("payments", "SubscriptionPlan")
    FeaturedListingPackage = apps.get_model("payments", "FeaturedListingPackage")

    SubscriptionPlan.objects.filter(slug__in=[p["slug"] for p in PLANS]).delete()
    FeaturedListingPackage.objects.filter(
        duration_days__in=[p["duration_days"] for p in PACKAGES]
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_catalog, remove_catalog),
    ]
