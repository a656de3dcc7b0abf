"""
StripBooth Backend — Services Layer
====================================

What:  Business logic between the routes (HTTP) and the models (persistence).
How:   Each service is a class with a module-level singleton. Methods take
       the request's AsyncSession and never commit on their own, except the
       editor save, which commits the project before packing the strip.

Service Inventory:
    - OrderService:          intake with pricing, queue queries, delivery
    - ProjectService:        project CRUD, photo attach, editor save
    - TemplateAllocator:     packs strips into six-slot print sheets
    - TemplateLifecycle:     download/print transitions and order cascades
    - PrintTemplateService:  sheet/slot/design-template CRUD
    - RaffleService:         raffle tickets and the draw
    - StorageService:        key-addressed media blob store
"""
