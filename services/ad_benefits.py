"""
Ad-benefit policy: which ad slots a subscriber no longer sees.
"""
from datetime import datetime

from models.package import AD_TIER_BASIC, AD_TIER_PREMIUM
from models.subscription import UserSubscription, STATUS_ACTIVE
from services.catalog import classify_ad_tier

# tier -> (hide_homepage_ads, hide_video_ads)
TIER_BENEFITS = {
    AD_TIER_BASIC: (True, False),
    AD_TIER_PREMIUM: (True, True),
}
DEFAULT_TIER = AD_TIER_BASIC

NO_BENEFITS = {
    'hide_homepage_ads': False,
    'hide_video_ads': False,
    'has_active_subscription': False,
}


def resolve_tier(package, config):
    """Stored tier, else classification by id and name, else the default."""
    if package is None:
        return DEFAULT_TIER
    if package.ad_tier in TIER_BENEFITS:
        return package.ad_tier
    return classify_ad_tier(package.id, package.name, config) or DEFAULT_TIER


def resolve_ad_benefits(subscription, now, config):
    """
    Map a subscription to ad benefits. Pure: reads only its arguments.

    A missing subscription, or one that is not active at ``now``, grants
    nothing. An unclassifiable package still hides homepage ads.
    """
    if (subscription is None
            or not subscription.is_active
            or subscription.canonical_status != STATUS_ACTIVE
            or not subscription.is_within_window(now)):
        return dict(NO_BENEFITS)

    package = subscription.package
    tier = resolve_tier(package, config)
    hide_homepage, hide_video = TIER_BENEFITS[tier]
    return {
        'hide_homepage_ads': hide_homepage,
        'hide_video_ads': hide_video,
        'has_active_subscription': True,
        'package_type': package.id if package is not None else subscription.package_id,
        'package_name': package.name if package is not None else None,
        'ad_tier': tier,
        'end_date': subscription.end_date.isoformat() if subscription.end_date else None,
    }


def find_benefit_subscription(user_id, now):
    return (UserSubscription.query
            .filter(UserSubscription.user_id == user_id,
                    UserSubscription.is_active.is_(True),
                    UserSubscription.status == STATUS_ACTIVE,
                    UserSubscription.start_date <= now,
                    UserSubscription.end_date >= now)
            .order_by(UserSubscription.end_date.desc())
            .first())


def get_ad_benefits(user_id, config, now=None):
    """Read-only lookup followed by the pure resolver"""
    now = now or datetime.utcnow()
    return resolve_ad_benefits(find_benefit_subscription(user_id, now), now, config)
