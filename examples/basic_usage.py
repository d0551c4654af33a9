"""
Basic usage example for RecordStore.
"""

from recordstore import Collection, Record, StoreEvent, FilterBuilder
from config import Settings


Person = Record.define("Person", {"fname": None, "lname": None, "age": None})


def main():
    Settings(log_level="DEBUG").configure_logging()
    
    print("=" * 60)
    print("RecordStore Basic Usage Example")
    print("=" * 60)
    
    # 1. Create collection
    print("\n1. Creating collection...")
    people = Collection(record_factory=Person, index_fields=["lname"])
    people.on(StoreEvent.RECORD_CREATE, lambda p: print(f"   + {p.fname} {p.lname}"))
    people.on(StoreEvent.RECORD_UPDATE, lambda p: print(f"   ~ {p.fname} {p.lname}"))
    print(f"   Created: {people}")
    
    # 2. Load and add records
    print("\n2. Loading records...")
    people.load([
        {"fname": "John", "lname": "Doe", "age": 40},
        {"fname": "Jane", "lname": "Doe", "age": 35},
        {"fname": "Vince", "lname": "Vaughn", "age": 50},
    ])
    people.add({"fname": "Jim", "lname": "Beam", "age": 28})
    print(f"   Total in collection: {len(people)}")
    
    # 3. Query
    print("\n3. Querying...")
    print(f"   lname == Doe: {[p.fname for p in people.find({'lname': 'Doe'})]}")
    print(f"   age > 36: {[p.fname for p in people.find(lambda p: p.age > 36)]}")
    print(f"   position 2: {people.find(2).fname}")
    print(people.explain({"lname": "Doe", "fname": "Jane"}).explain())
    
    # 4. Filter
    print("\n4. Filtering...")
    under_45 = FilterBuilder().field("age").lt(45).build()
    people.add_filter(under_45)
    print(f"   Visible: {[p.fname for p in people.records]}")
    people.clear_filters()
    
    # 5. Mutate a record
    print("\n5. Updating a record...")
    people.find(1).lname = "Smith"
    print(f"   lname == Smith: {[p.fname for p in people.find({'lname': 'Smith'})]}")
    
    # 6. Sort
    print("\n6. Sorting by lname asc, fname desc...")
    people.sort({"lname": "asc", "fname": "desc"})
    print(f"   Order: {[p.fname for p in people]}")
    
    # 7. Change tracking
    print("\n7. Change tracking...")
    people.remove(0)
    print(f"   Created since load: {[p.fname for p in people.created]}")
    print(f"   Deleted since load: {[p.fname for p in people.deleted]}")
    
    # 8. Statistics
    print("\n8. Statistics...")
    print(f"   {people.stats().to_dict()}")
    
    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
