"""
Payments app: Stripe-backed billing for the listing marketplace.

This app handles:
- Featured-listing payments (create, confirm, refund)
- Subscription lifecycle (create, cancel, lazy expiry)
- Stripe customer management
- Webhook event handling

Related apps:
    - authentication: User and Profile (Stripe customer ID)
    - listings: Listing featuring side effects

Usage:
    from payments.services import PaymentOrchestrator, SubscriptionOrchestrator

    created = PaymentOrchestrator.feature_listing(listing.id, package.id, actor=user)
    subscription = SubscriptionOrchestrator.create_subscription(user, "premium")
"""
