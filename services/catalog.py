"""
Subscription package catalog
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.package import SubscriptionPackage, AD_TIERS, AD_TIER_BASIC, AD_TIER_PREMIUM
from models.role import AccountType
from models.subscription import UserSubscription
from utils.errors import ValidationError, NotFoundError, ConflictError, InternalError

logger = logging.getLogger(__name__)

PACKAGE_FIELDS = ('name', 'description', 'price', 'duration_days', 'features',
                  'is_active', 'discount', 'account_type_id', 'ad_tier')


def classify_ad_tier(package_id, name, config):
    """
    Decide the ad tier of a package from configuration.

    Configured package ids win over name keywords, basic keywords over
    premium ones. Returns 'basic', 'premium' or None when nothing matches.
    """
    if package_id is not None:
        key = str(package_id)
        if key in [str(i) for i in config.get('BASIC_PACKAGE_IDS') or []]:
            return AD_TIER_BASIC
        if key in [str(i) for i in config.get('PREMIUM_PACKAGE_IDS') or []]:
            return AD_TIER_PREMIUM

    lowered = (name or '').lower()
    if lowered:
        if any(keyword.lower() in lowered for keyword in config.get('BASIC_PACKAGE_KEYWORDS') or []):
            return AD_TIER_BASIC
        if any(keyword.lower() in lowered for keyword in config.get('PREMIUM_PACKAGE_KEYWORDS') or []):
            return AD_TIER_PREMIUM
    return None


def list_packages(include_inactive=False):
    query = SubscriptionPackage.query
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(SubscriptionPackage.price.asc(), SubscriptionPackage.id.asc()).all()


def get_package(package_id, active_only=False):
    package = db.session.get(SubscriptionPackage, package_id)
    if not package or (active_only and not package.is_active):
        raise NotFoundError('Subscription package not found', {'package_id': package_id})
    return package


def _as_int(data, field, minimum=None, maximum=None, strict_min=False):
    value = data[field]
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number')
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number')
    if minimum is not None and (value <= minimum if strict_min else value < minimum):
        raise ValidationError(f'{field} must be {"greater than" if strict_min else "at least"} {minimum}')
    if maximum is not None and value > maximum:
        raise ValidationError(f'{field} must be at most {maximum}')
    return value


def _validate(data, partial=False):
    """Return the cleaned subset of fields present in data."""
    required = ('name', 'description', 'price', 'duration_days', 'account_type_id')
    if not partial:
        missing = [field for field in required if data.get(field) in (None, '')]
        if missing:
            raise ValidationError('Missing required fields', {'fields': missing})

    cleaned = {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not 2 <= len(name) <= 50:
            raise ValidationError('Package name must be between 2 and 50 characters')
        cleaned['name'] = name
    if 'description' in data:
        description = (data.get('description') or '').strip()
        if len(description) < 10:
            raise ValidationError('Description must be at least 10 characters')
        cleaned['description'] = description
    if 'price' in data:
        cleaned['price'] = _as_int(data, 'price', minimum=0)
    if 'duration_days' in data:
        cleaned['duration_days'] = _as_int(data, 'duration_days', minimum=0, strict_min=True)
    if 'discount' in data:
        cleaned['discount'] = _as_int(data, 'discount', minimum=0, maximum=100) if data['discount'] is not None else 0
    if 'features' in data:
        features = data.get('features') or []
        if not isinstance(features, list) or not all(isinstance(f, str) for f in features):
            raise ValidationError('features must be a list of strings')
        cleaned['features'] = [f.strip() for f in features if f.strip()]
    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            raise ValidationError('is_active must be a boolean')
        cleaned['is_active'] = data['is_active']
    if 'account_type_id' in data:
        account_type_id = _as_int(data, 'account_type_id')
        if not db.session.get(AccountType, account_type_id):
            raise NotFoundError('Account type not found', {'account_type_id': account_type_id})
        cleaned['account_type_id'] = account_type_id
    if 'ad_tier' in data:
        ad_tier = data['ad_tier']
        if ad_tier is not None and ad_tier not in AD_TIERS:
            raise ValidationError(f'ad_tier must be one of: {", ".join(AD_TIERS)}')
        cleaned['ad_tier'] = ad_tier
    return cleaned


def _ensure_unique_name(name, exclude_id=None):
    query = SubscriptionPackage.query.filter(db.func.lower(SubscriptionPackage.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(SubscriptionPackage.id != exclude_id)
    if query.first():
        raise ConflictError('A package with this name already exists', {'name': name})


def _commit(action, package_name):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise ConflictError('A package with this name already exists', {'name': package_name}, e)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {action} package {package_name}: {str(e)}", exc_info=True)
        raise InternalError(f'Failed to {action} package', original_error=e)


def create_package(data, config):
    cleaned = _validate(data)
    _ensure_unique_name(cleaned['name'])

    package = SubscriptionPackage(
        name=cleaned['name'],
        description=cleaned['description'],
        price=cleaned['price'],
        duration_days=cleaned['duration_days'],
        features=cleaned.get('features', []),
        is_active=cleaned.get('is_active', True),
        discount=cleaned.get('discount', 0),
        account_type_id=cleaned['account_type_id'],
    )
    db.session.add(package)
    try:
        db.session.flush()  # id needed for configured-id classification
    except IntegrityError as e:
        db.session.rollback()
        raise ConflictError('A package with this name already exists', {'name': cleaned['name']}, e)

    if 'ad_tier' in cleaned and cleaned['ad_tier'] is not None:
        package.ad_tier = cleaned['ad_tier']
    else:
        package.ad_tier = classify_ad_tier(package.id, package.name, config)

    _commit('create', package.name)
    logger.info(f"Package created: {package.name} (#{package.id}, ad tier {package.ad_tier})")
    return package


def update_package(package_id, data, config):
    package = get_package(package_id)
    cleaned = _validate(data, partial=True)
    if not cleaned:
        raise ValidationError('No fields to update')

    renamed = 'name' in cleaned and cleaned['name'] != package.name
    if renamed:
        _ensure_unique_name(cleaned['name'], exclude_id=package.id)

    for field, value in cleaned.items():
        setattr(package, field, value)

    if renamed and 'ad_tier' not in cleaned:
        package.ad_tier = classify_ad_tier(package.id, package.name, config)

    _commit('update', package.name)
    return package


def delete_package(package_id):
    """Hard-delete a package nobody ever subscribed to."""
    package = get_package(package_id)
    in_use = UserSubscription.query.filter_by(package_id=package.id).count()
    if in_use:
        raise ConflictError(
            'Package is referenced by subscriptions; deactivate it instead',
            {'package_id': package.id, 'subscriptions': in_use},
        )
    db.session.delete(package)
    _commit('delete', package.name)
    logger.info(f"Package deleted: {package.name} (#{package_id})")
